"""Operator command line for docrag.

``python -m docrag.cli <command>`` (or the ``docrag`` console script) runs
:mod:`docrag.cli.ingest`.
"""
