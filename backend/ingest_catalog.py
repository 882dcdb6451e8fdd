#!/usr/bin/env python3
"""
Load catalog items from a JSON Lines file into item_embeddings and the vector index.

Each line: {"app_id": 570, "metadata": {...}} with an optional precomputed "vector".
"""

import sys
import os
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

import json
import logging
import numpy as np
from app.core.exceptions import BaseAppException
from app.db import SessionLocal
from app.dependencies import build_catalog_service

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

def ingest(path: str) -> None:
    db = SessionLocal()
    ingested = 0
    rejected = 0
    try:
        catalog = build_catalog_service(db)
        with open(path, encoding="utf-8") as handle:
            for line_no, line in enumerate(handle, start=1):
                if not line.strip():
                    continue
                row = json.loads(line)
                vector = row.get("vector")
                try:
                    catalog.ingest_item(
                        row["app_id"],
                        row["metadata"],
                        np.asarray(vector, dtype=np.float64) if vector is not None else None
                    )
                    ingested += 1
                except (BaseAppException, ValueError) as e:
                    rejected += 1
                    logger.warning(f"Line {line_no} rejected: {str(e)}")
        print(f"📦 Ingested: {ingested}, rejected: {rejected}")
    finally:
        db.close()

if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("Usage: python ingest_catalog.py <catalog.jsonl>")
        sys.exit(1)
    ingest(sys.argv[1])
