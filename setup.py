from setuptools import setup, find_packages

setup(
    name='autoHTMLillustrator',
    version='0.1.0',
    packages=find_packages(exclude=["tests", "tests.*"]),
    description='autoHTMLillustrator finds the places in an HTML blog post that need pictures, fetches matching stock photos (or generates them) and inserts ready-made image blocks right after those places.',
    install_requires=[
        "openai>=1.27.0,<2",
        "tenacity>=8.2.3",
        "tiktoken>=0.4.0,<1",
        "litellm>=1.40.0",
        "requests>=2.31",
        "Pillow>=10.1",
        "fastapi>=0.110",
        "uvicorn>=0.27",
    ],
    extras_require={
        'test': [
            "pytest>=7",
            "httpx>=0.25",
        ],
    },
    entry_points={
        'console_scripts': [
            'autoHTMLillustrator = autoHTMLillustrator.main:main',
        ],
    },
)
