"""
Custom Exceptions

This module defines custom exceptions for the link rotation service.

Benefits:
- More specific error types for different failure scenarios
- Endpoints map each type to one HTTP status code
- Easier error handling and logging
"""


class LinkRotatorException(Exception):
    """Base exception for the link rotation service."""
    pass


class InvalidURLError(LinkRotatorException):
    """Raised when URL validation fails."""
    
    def __init__(self, url: str, reason: str = "Invalid URL format"):
        self.url = url
        self.reason = reason
        super().__init__(f"{reason}: {url}")


class InvalidRuleIdError(LinkRotatorException):
    """Raised when an operator-supplied rule identifier is malformed or reserved."""
    
    def __init__(
        self,
        rule_id: str,
        reason: str = "Rule ids may only contain letters, digits and hyphens",
    ):
        self.rule_id = rule_id
        self.reason = reason
        super().__init__(f"Invalid rule id '{rule_id}'. {reason}.")


class RuleNotFoundError(LinkRotatorException):
    """Raised when a routing rule is not found in the database."""
    
    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__(f"Routing rule '{rule_id}' not found")


class RuleConflictError(LinkRotatorException):
    """Raised when a routing rule id is already taken."""
    
    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__(f"Routing rule '{rule_id}' already exists")


class RuleInactiveError(LinkRotatorException):
    """Raised when a redirect is requested for a disabled or expired rule."""
    
    def __init__(self, rule_id: str, status: str):
        self.rule_id = rule_id
        self.status = status
        super().__init__(f"Routing rule '{rule_id}' is not active (status: {status})")


class SlugExhaustedError(LinkRotatorException):
    """Raised when every generated identifier collided with an existing one."""
    
    def __init__(self, attempts: int, prefix: str = ""):
        self.attempts = attempts
        self.prefix = prefix
        super().__init__(
            f"Failed to generate a unique identifier with prefix '{prefix}' "
            f"after {attempts} attempts"
        )


class CounterStoreError(LinkRotatorException):
    """Raised when the rate-limit counter store cannot be reached."""
    
    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(f"Counter store error: {message}")


class DatabaseError(LinkRotatorException):
    """Raised when database operations fail."""
    
    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")
