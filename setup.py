from setuptools import setup, find_packages

setup(
    name="rendermd",
    version="0.1.0",
    description="Render a tree of markdown files into static HTML pages, concurrently",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    license="0BSD",
    python_requires=">=3.10",
    packages=find_packages(),
    install_requires=[
        "markdown>=3.8.2",
        "pygments>=2.19.2",
        "beautifulsoup4>=4.12",
        "mcp>=1.0.0,<2",
    ],
    extras_require={
        "test": ["pytest>=7"],
    },
    entry_points={
        "console_scripts": [
            "rendermd=rendermd_package.rendermd:main",
            "rendermd-mcp=rendermd_package.mcp_server:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Topic :: Text Processing :: Markup :: Markdown",
    ],
)
