# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

import importlib.metadata as metadata

# Distribution name used for the version lookup
PACKAGE_NAME = "aptos-core-client"


class Metadata:
    """Identifies this library to nodes through the ``x-aptos-client`` header."""

    APTOS_HEADER = "x-aptos-client"

    @staticmethod
    def get_aptos_header_val() -> str:
        """``aptos-core-client/<installed version>``.

        Raises:
            PackageNotFoundError: If the distribution is not installed.
        """
        version = metadata.version(PACKAGE_NAME)
        return f"{PACKAGE_NAME}/{version}"
