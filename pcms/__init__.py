"""
PCMS - Procurement & Contract Management System

Record keeping for contract and procurement ledgers imported from Excel.

Modules:
    core     - Shared services (db, config, logging, paths, output)
    fields   - Field catalog, default field seed, field configuration CRUD
    imports  - Worksheet recognition, header matching, row extraction, import jobs
    records  - Contract and procurement record storage
"""

__version__ = "0.1.0"
