"""Parameter file support.

This package loads the environment-specific substitution rules from
parameter.yml and applies them to item files before publish.
"""

from .errors import ParameterFileError
from .models import EnvironmentParameter, FindReplaceRule, KeyValueReplaceRule, SparkPoolRule
from .parameter_file import ParameterFile
from .substitution import SubstitutionContext, apply_parameters, resolve_replace_value

__all__ = [
    'ParameterFileError',
    'EnvironmentParameter',
    'FindReplaceRule',
    'KeyValueReplaceRule',
    'SparkPoolRule',
    'ParameterFile',
    'SubstitutionContext',
    'apply_parameters',
    'resolve_replace_value',
]
