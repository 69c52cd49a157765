"""
Firelucid - Async ODM for document databases

Maps typed Python models onto document-store collections with a fluent
query builder, declarative relations, batched preloading and lifecycle hooks.
"""

from setuptools import setup, find_packages
import os

# Read README for long description
def read_long_description():
    readme_path = os.path.join(os.path.dirname(__file__), 'README.md')
    if os.path.exists(readme_path):
        with open(readme_path, 'r', encoding='utf-8') as f:
            return f.read()
    return ""

# Define optional dependencies
extras_require = {
    # Built-in engines (no extra install needed)
    'memory': [],

    # Engines requiring external dependencies
    'firestore': [
        'google-cloud-firestore>=2.11.0',
    ],

    # Test dependencies
    'test': [
        'pytest>=7.0.0',
        'pytest-asyncio>=0.21.0',
    ],

    # Development dependencies
    'dev': [
        'mypy>=0.950',
        'build>=0.7.0',
        'twine>=4.0.0',
    ],
}

# All engines
extras_require['all'] = (
    extras_require['firestore']
)

# Full development environment
extras_require['full'] = (
    extras_require['all'] +
    extras_require['test'] +
    extras_require['dev']
)

setup(
    name="firelucid",
    version="0.1.0",
    description="Async ODM for document databases - fluent queries, relations, preloading and lifecycle hooks",
    long_description=read_long_description(),
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=['examples', 'tests']),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Framework :: AsyncIO",
        "Topic :: Database",
        "Topic :: Database :: Front-Ends",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Typing :: Typed",
    ],
    python_requires=">=3.10",

    # Core dependencies (zero external dependencies, pure Python)
    install_requires=[],

    # Optional dependencies
    extras_require=extras_require,

    # Project metadata
    keywords="odm orm nosql document-database firestore asyncio firelucid",
)
