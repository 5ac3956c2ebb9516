"""
Binding Constraint Validator - Page-count limits per binding type.

Validation is advisory: a violated bound produces a warning, never an error,
and the calculator still prices the job.
"""
from .models import BindingType, BindingValidation


class BindingConstraintValidator:
    """Checks a page count against a binding type's min/max pages."""

    def validate(self, binding: BindingType, pages: int) -> BindingValidation:
        warnings = []

        if binding.min_pages is not None and pages < binding.min_pages:
            warnings.append(
                f"Minimum {binding.min_pages} pages for binding '{binding.label}' (requested {pages})"
            )
        if binding.max_pages is not None and pages > binding.max_pages:
            warnings.append(
                f"Maximum {binding.max_pages} pages for binding '{binding.label}' (requested {pages})"
            )

        return BindingValidation(
            is_valid=not warnings,
            warnings=warnings,
            suggested_duplex=binding.duplex_default,
        )

    @staticmethod
    def suggested_duplex(binding: BindingType) -> bool:
        return binding.duplex_default
