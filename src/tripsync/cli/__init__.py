"""Command-line interface for tripsync."""

from __future__ import annotations

import asyncio
import logging as logging

from tripsync import TripSync as TripSync
from tripsync import load_config as load_config
from tripsync.cli.app import main as main
from tripsync.cli.commands import balance as balance_command
from tripsync.cli.commands import bills as bills_command
from tripsync.cli.parser import build_parser as build_parser

_format_balance = balance_command.format_balance
_format_bill_list = bills_command.format_bill_list

_run_balance = balance_command.run_balance
_run_bills = bills_command.run_bills
_run_archive = bills_command.run_archive
_run_restore = bills_command.run_restore
