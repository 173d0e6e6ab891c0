from setuptools import setup, find_packages


setup(
    name="sngkit",
    version="0.1",
    packages=find_packages(),
    description="Reader and extractor for SNGPKG song archives.",
    author="vercingetorx",
    install_requires=[
        "pycryptodomex>=3.23.0",
    ],
    entry_points={
        "console_scripts": [
            "sngkit=sngkit.cli:main",
        ]
    },
)
