#!/usr/bin/env python3
"""
Setup configuration for theme-compressor
Compress theme songs to MP3 and tag them with TMDB poster art
"""

from setuptools import setup, find_packages

# Read README for long description
with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

# Core requirements (always installed)
core_requirements = [
    "mutagen>=1.47.0",
    "click>=8.1.7",
    "pyyaml>=6.0.1",
    "ffmpeg-python>=0.2.0",
    "colorama>=0.4.6",
    "python-dotenv>=1.0.0",
    "aiohttp>=3.9.1",
    "Pillow>=10.0.0",
]

setup(
    name="theme-compressor",
    version="1.0.0",
    author="theme-compressor contributors",
    description="Compress theme songs to MP3 and embed TMDB poster art",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["theme_compressor", "theme_compressor.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Web Environment",
        "Environment :: Console",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Multimedia :: Sound/Audio :: Conversion",
        "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
    ],
    python_requires=">=3.10",
    install_requires=core_requirements,
    extras_require={
        "dev": [
            "pytest>=7.4.3",
            "pytest-asyncio>=0.23.0",
            "black>=23.11.0",
            "flake8>=6.1.0",
            "mypy>=1.7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "theme-compressor=theme_compressor.main:cli",
        ],
    },
    keywords="mp3 ffmpeg id3 tmdb poster compression aiohttp",
)
