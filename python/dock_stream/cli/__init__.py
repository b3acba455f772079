# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Command-line interface for dock-stream."""
