import re


# Valid subject pattern: tickers (AAPL, BRK.A, BRK-B) and exchange codes (000001, 600519.SH)
SUBJECT_PATTERN = re.compile(r"^[A-Z0-9][A-Z0-9.\-]{0,11}$")

# Pattern to detect potential injection attempts
INJECTION_PATTERN = re.compile(r"[<>\"'`;\\|&$(){}[\]]")

# Reserved/invalid subject patterns
RESERVED_PATTERNS = re.compile(r"^(null|undefined|none|true|false|nan|inf)$", re.IGNORECASE)

MAX_SUBJECT_LENGTH = 12


class SubjectValidationError(ValueError):
    """Exception raised for invalid subject identifiers."""
    
    def __init__(self, subject_id: str, reason: str):
        self.subject_id = subject_id
        self.reason = reason
        super().__init__(f"Invalid subject id '{subject_id}': {reason}")


def validate_subject_id(subject_id: str) -> str:
    """Validate and normalize a subject identifier.
    
    Performs:
    - Empty/whitespace check
    - Length validation
    - Injection character rejection
    - Reserved word detection
    - Character pattern validation
    
    Args:
        subject_id: Stock code or ticker to validate.
        
    Returns:
        Normalized (uppercase, trimmed) identifier.
        
    Raises:
        SubjectValidationError: If the identifier is invalid.
    """
    if subject_id is None:
        raise SubjectValidationError("", "Subject id cannot be None")
    
    cleaned = subject_id.strip()
    
    if not cleaned:
        raise SubjectValidationError(subject_id, "Subject id cannot be empty")
    
    if len(cleaned) > MAX_SUBJECT_LENGTH:
        raise SubjectValidationError(
            subject_id,
            f"Subject id exceeds maximum length of {MAX_SUBJECT_LENGTH} characters"
        )
    
    if INJECTION_PATTERN.search(cleaned):
        raise SubjectValidationError(subject_id, "Subject id contains invalid characters")
    
    if RESERVED_PATTERNS.match(cleaned):
        raise SubjectValidationError(subject_id, "Subject id uses a reserved word")
    
    normalized = cleaned.upper()
    
    if not SUBJECT_PATTERN.match(normalized):
        raise SubjectValidationError(
            subject_id,
            "Subject id must start with a letter or digit and contain only letters, digits, dots, or hyphens"
        )
    
    return normalized
