from setuptools import find_packages, setup

with open('requirements.txt') as f:
    requirements = f.read().splitlines()

setup(
    name='party_bot',
    entry_points = {
        'console_scripts': ['run-party-bot=party_bot.main:run'],
    },
    extras_require={
        'postgres': ['asyncpg', 'psycopg2-binary'],
        'test': ['pytest', 'pytest-asyncio'],
    },
    install_requires=requirements,
    packages=find_packages(exclude=['tests', 'tests.*']),
    version='1.0',
)
