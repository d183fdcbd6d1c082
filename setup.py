from setuptools import setup, find_packages

setup(
    name="webqa_casegen",
    version="0.0.1",
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    install_requires=[
        "playwright==1.52.0",
        "pydantic>=2",
        "openai",
        "httpx",
        "python-dotenv",
        "PyYAML",
        "tldextract",
        "requests",
        "beautifulsoup4",
        "jinja2"
    ],
    extras_require={
        "test": ["pytest"],
    },
    python_requires='>=3.10',
)
