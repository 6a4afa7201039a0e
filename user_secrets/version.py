"""User Secrets Meta information.
   User Secrets keeps per-user web logins, credit cards and secure notes
   encrypted at rest under an organization data key.
"""
__title__ = 'user_secrets'
__description__ = (
   'Per-user encrypted secret store (web logins, credit cards and '
   'secure notes) scoped to organization data keys.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/phenobarbital/user-secrets'
