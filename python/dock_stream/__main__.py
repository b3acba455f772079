# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Allow ``python -m dock_stream``."""

from dock_stream.cli.main import cli

cli()
