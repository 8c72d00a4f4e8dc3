import configparser

# Process-wide configuration. The CLI fills it from an INI file; library and
# server users may call config.read()/read_dict() themselves. Every reader
# passes its own fallback, so an empty parser is a valid configuration.
config = configparser.ConfigParser()


def get_int(section: str, key: str, fallback: int) -> int:
    try:
        return int(config.get(section, key, fallback=str(fallback)))
    except Exception:
        return fallback


def get_float(section: str, key: str, fallback: float) -> float:
    try:
        return float(config.get(section, key, fallback=str(fallback)))
    except Exception:
        return fallback


def get_bool(section: str, key: str, fallback: bool) -> bool:
    try:
        val = config.get(section, key, fallback="true" if fallback else "false")
    except Exception:
        return fallback
    return str(val).strip().lower() in {"1", "true", "yes", "on"}


def get_list(section: str, key: str, fallback: str) -> list:
    try:
        raw = config.get(section, key, fallback=fallback)
    except Exception:
        raw = fallback
    return [item.strip().lower() for item in str(raw).split(",") if item.strip()]
