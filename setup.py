from setuptools import setup, find_packages

setup(
    name='zmongo_mapper',
    version='0.1.0',
    packages=find_packages(include=['zmongo_mapper', 'zmongo_mapper.*']),
    install_requires=[
        'python-dotenv',
        'pymongo',
        'motor',
        'pydantic>=2',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-asyncio',
            'mongomock',
        ],
    },
    python_requires='>=3.8',
    include_package_data=True,
    description='Map Python objects to MongoDB documents with shell-style query templates.',
    author='CentralFloridaAttorney',
)
