from setuptools import find_packages, setup

APP = "sshdb"

setup(
    name=APP,
    version="0.4.0",
    description="Keyboard-driven terminal registry of SSH hosts with bastion chains",
    packages=find_packages(include=["sshdb", "sshdb.*"]),
    python_requires=">=3.9",
    install_requires=[
        "textual>=0.48",
        "rich>=13",
    ],
    extras_require={
        "test": ["pytest>=7"],
    },
    entry_points={
        "console_scripts": [
            "sshdb=sshdb.tui:main",
        ],
    },
    classifiers=[
        "Environment :: Console :: Curses",
        "License :: OSI Approved :: GNU General Public License v3 or later (GPLv3+)",
        "Programming Language :: Python :: 3",
        "Topic :: System :: Networking",
    ],
)
