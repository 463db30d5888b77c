import pathlib
from setuptools import setup, find_packages

HERE = pathlib.Path(__file__).parent

README = (HERE / "README.md").read_text()

setup(
    name='xdebsync',
    version='0.1.0',
    description='A tool to synchronise xdeb package lists from APT and custom repositories.',
    python_requires='>=3.9',
    long_description=README,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests"]),
    package_data={
        "xdebsync": ["xdebsync.conf.example"],
    },
    install_requires=[
        'Click >= 7.1.2',
        'Colorama >= 0.4.4',
        'tqdm >= 4.60.0',
        'filelock >= 3.0.12',
        'tendo >= 0.2.15',
        'requests >= 2.25.0',
        'urllib3 >= 1.26.0',
        'PyYAML >= 5.4',
        'zstandard >= 0.18.0'
    ],
    extras_require={
        'test': [
            'coverage >= 5.5'
        ]
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Intended Audience :: System Administrators",
        "Natural Language :: English",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: Implementation",
        "Topic :: System :: Archiving :: Mirroring"
    ],
    keywords=['Mirror', 'Debian', 'Repository', 'xdeb'],
    entry_points={
        'console_scripts': [
            "xdebsync = xdebsync.xdebsync:main"
        ]
    },
)
