"""Domain value objects."""
from backend.domain.value_objects.pattern_match import PatternKind, PatternMatch

__all__ = ["PatternKind", "PatternMatch"]
