# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Exception hierarchy shared by every layer of the library.

All errors raised by this package derive from :class:`AptosError`, so callers that
do not care about the failure kind can catch a single type. The subclasses map to
the layer that produced them:

- :class:`EncodingError` for malformed BCS input or output
- :class:`TypeTagError` for type tags that cannot be parsed or resolved
- :class:`ValueConversionError` for user values that do not fit their declared type
- :class:`CryptoError` for malformed keys, signatures and key text
- :class:`BitmapError` for inconsistent multi-signature bitmaps
- :class:`ApiError` for non-success responses from a node

Signature verification never raises; it reports failure by returning ``False``.
"""

from typing import Optional


class AptosError(Exception):
    """Base class for every error raised by the library."""


class EncodingError(AptosError):
    """BCS bytes could not be produced or consumed."""


class TypeTagError(AptosError):
    """A Move type tag could not be parsed or resolved."""


class ValueConversionError(AptosError):
    """A value does not fit the type it is being encoded as."""


class CryptoError(AptosError):
    """Key or signature material is malformed."""


class BitmapError(AptosError):
    """A multi-signature bitmap is invalid for the signatures it describes."""


class ApiError(AptosError):
    """The API returned a non-success status code, e.g., >= 400"""

    status_code: Optional[int]

    def __init__(self, message: str, status_code: Optional[int] = None):
        # Call the base class constructor with the parameters it needs
        super().__init__(message)
        self.status_code = status_code
        self.message = message

    def __str__(self) -> str:
        if self.status_code:
            return f"ApiError ({self.status_code}): {self.message}"
        return f"ApiError: {self.message}"
