import setuptools
import os

own_dir = os.path.abspath(os.path.dirname(__file__))


def requirements():
    with open(os.path.join(own_dir, 'requirements.txt')) as f:
        for line in f.readlines():
            line = line.strip()
            if not line or line.startswith('#'):
                continue

            yield line


def version():
    with open(os.path.join(own_dir, 'VERSION')) as f:
        return f.read().strip()


setuptools.setup(
    name='digestpin',
    version=version(),
    description='pin container-image references of swarm-services to registry digests',
    python_requires='>=3.10',
    packages=['digestpin'],
    install_requires=list(requirements()),
    extras_require={
        'test': [
            'pytest',
        ],
    },
    entry_points={
        'console_scripts': [
            'digestpin = digestpin.__main__:main',
        ],
    },
)
