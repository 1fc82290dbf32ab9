"""
JourneyRAG Setup Script

Install with: pip install -e .
"""

from setuptools import setup, find_packages

setup(
    name='journey-rag',
    version='0.1.0',
    description='Graph-augmented hybrid retrieval for career journey matching',
    author='JourneyRAG Team',
    packages=find_packages(include=['journeyrag', 'journeyrag.*']),
    package_data={
        'journeyrag.weights': ['config/*.yaml'],
    },
    install_requires=[
        'sqlalchemy>=2.0.0',
        'aiosqlite>=0.19.0',
        'greenlet>=3.0.0',
        'pydantic>=2.5.0',
        'pyyaml>=6.0.1',
        'numpy>=1.26.0',
        'structlog>=23.2.0',
        'click>=8.1.0',
    ],
    extras_require={
        'test': [
            'pytest>=7.4.0',
            'pytest-asyncio>=0.23.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'journeyrag-cli=journeyrag.cli:cli',
        ],
    },
    python_requires='>=3.11',
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Scientific/Engineering :: Information Analysis',
    ],
)
