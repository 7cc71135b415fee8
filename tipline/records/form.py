"""
Request form validation.
"""

import math
import re
from typing import Any, Dict, List, Mapping, Optional, Union


INTEGER_TYPES = ('int', 'integer')
FLOAT_TYPES = ('float', 'decimal')
CHECKBOX_TYPES = ('checkbox',)

# Plain decimal notation with an optional exponent; no inf, nan or underscores
NUMERIC = re.compile(r'[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?', re.ASCII)
DIGITS = re.compile(r'[+-]?\d+', re.ASCII)


def _to_number(value: str, integer: bool = True) -> Optional[Union[int, float]]:
    """
    Number written in `value`, or None if it is not a finite number.

    Whole numbers stay exact ints when `integer` is set.
    """
    if not isinstance(value, str) or not NUMERIC.fullmatch(value):
        return None
    if integer and DIGITS.fullmatch(value):
        return int(value)
    number = float(value)
    return number if math.isfinite(number) else None


class Form:
    """
    Declares the expected inputs of a form and checks submitted values.

    Example:
        form = Form()
        form.add('sms_contents', required=True, blank_message='Please enter a message')
        form.add('user_id', 'int', invalid_message='User must be a number')
        if not form.validate(request_args):
            return form.error_str()
    """

    def __init__(self):
        self.inputs: List[tuple] = []
        self.errors: List[str] = []
        self.values: Dict[str, Any] = {}

    def add(self, name: str, type: str = 'string', required: bool = False,
            blank_message: str = '', invalid_message: str = '') -> None:
        self.inputs.append((name, type.lower(), required, blank_message, invalid_message))

    def error_str(self, separator: str = '<br />') -> str:
        return ''.join(error + separator for error in self.errors)

    def validate(self, params: Mapping[str, Any]) -> bool:
        """
        Check `params` against the declared inputs.

        Cleaned values end up in `values`: checkboxes become booleans,
        numbers are converted, blank optional inputs are left out.

        Returns:
            True if every input is valid
        """
        self.errors = []
        self.values = {}
        valid = True

        for name, type_, required, blank_message, invalid_message in self.inputs:
            value = params.get(name, '')
            if value is None:
                value = ''
            if isinstance(value, str):
                value = value.strip()

            if value == '':
                if required:
                    self.errors.append(blank_message)
                    valid = False
                elif type_ in CHECKBOX_TYPES:
                    self.values[name] = False
                continue

            if type_ in CHECKBOX_TYPES:
                value = value == 'Y'
            elif type_ in INTEGER_TYPES or type_ in FLOAT_TYPES:
                number = _to_number(value, integer=type_ in INTEGER_TYPES)
                if number is None:
                    self.errors.append(invalid_message)
                    valid = False
                    continue
                if type_ in FLOAT_TYPES:
                    value = number
                elif isinstance(number, float) and number.is_integer():
                    value = int(number)
                else:
                    value = number

            self.values[name] = value

        return valid
