"""Module for RDS IAM authentication exceptions."""


class RdsIamAuthError(Exception):
    """Base exception class for RDS IAM authentication errors."""


class ConfigurationError(RdsIamAuthError):
    """Exception raised when a required parameter is missing or out of range."""


class CredentialError(ConfigurationError):
    """Exception raised when AWS credentials are missing or no longer usable."""


class SigningError(RdsIamAuthError):
    """Exception raised when auth token signing fails."""


class EncodingError(SigningError):
    """Exception raised when a parameter cannot be encoded into the canonical request."""


class TokenFormatError(RdsIamAuthError):
    """Exception raised when a string is not a well-formed auth token."""


class AuthenticationError(RdsIamAuthError):
    """Exception raised when the database server rejects the auth token."""


class TransportError(RdsIamAuthError):
    """Exception raised when an encrypted transport cannot be established."""


class DatabaseConnectionError(RdsIamAuthError):
    """Exception raised when the database server cannot be reached."""
