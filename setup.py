from setuptools import setup, find_packages

setup(
    name="tick_candles",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "colorama",
        "numpy",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        'console_scripts': [
            'tick-candles=tick_candles.cli:main',
        ],
    },
    # Metadata
    description="Turns timestamped price ticks into OHLC candles over intervals inferred from tick density",
    long_description=open('README.md').read(),
    long_description_content_type="text/markdown",
    keywords="trading,candles,ohlc,ticks",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Financial and Insurance Industry",
        "Programming Language :: Python :: 3",
    ],
    python_requires=">=3.9",
)
