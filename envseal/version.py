"""EnvSeal Meta information.
   EnvSeal encrypts .env files with a password so they can be shared safely.
"""
__title__ = 'envseal'
__description__ = (
   'EnvSeal encrypts .env files with a password '
   'so they can be committed and shared safely.'
)
__version__ = '0.1.0'
__license__ = 'Apache-2.0'
