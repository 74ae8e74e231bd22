"""
Batch ingestion of a client's case file folder.

Processes every PDF, text and markdown file in a directory through the
case document pipeline:
- Parser: CaseDocumentParser (PyMuPDF for PDFs)
- Chunker: ParagraphChunker
- Embeddings: provider from EMBEDDING_PROVIDER (best effort per chunk)
- Storage: PostgreSQL + pgvector with client_id isolation

Usage:
    python ingest_folder.py --dir ~/case_files/smith/
    python ingest_folder.py --dir ~/case_files/smith/ --case-id 3f2b8c1e-6d4a-4e7b-9a51-0c8d2e7f4b19 --analyze
"""

import sys
import time
import argparse
import logging
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)

DEMO_CLIENT_ID = "00000000-0000-0000-0000-000000000001"


def main():
    arg_parser = argparse.ArgumentParser(description="Ingest a folder of case documents")
    arg_parser.add_argument(
        "--dir",
        type=str,
        required=True,
        help="Directory containing PDFs, text and markdown files",
    )
    arg_parser.add_argument(
        "--client-id",
        type=str,
        default=DEMO_CLIENT_ID,
        help=f"Client ID (default: {DEMO_CLIENT_ID})",
    )
    arg_parser.add_argument("--case-id", type=str, default=None, help="Attach documents to this case")
    arg_parser.add_argument(
        "--analyze",
        action="store_true",
        help="Run medical/legal analysis, timeline and case strength after ingestion",
    )
    arg_parser.add_argument("--local", action="store_true", help="Use local sentence-transformers embeddings")
    args = arg_parser.parse_args()

    input_dir = Path(args.dir)
    if not input_dir.exists():
        logger.error(f"Directory not found: {input_dir}")
        sys.exit(1)

    from execution.casefile_rag.document_parser import SUPPORTED_SUFFIXES
    from execution.casefile_rag.embeddings import get_embedding_service
    from execution.casefile_rag.pipeline import CaseDocumentPipeline, IngestionError
    from execution.casefile_rag.vector_store import VectorStore, VectorStoreConfig

    files = sorted(p for p in input_dir.iterdir() if p.is_file() and p.suffix.lower() in SUPPORTED_SUFFIXES)
    if not files:
        logger.error(f"No supported files found in {input_dir}")
        sys.exit(1)

    logger.info(f"Found {len(files)} files in {input_dir}")

    embedding_service = get_embedding_service(use_local=args.local)
    store = VectorStore(VectorStoreConfig(embedding_dimensions=embedding_service.dimensions))
    store.connect()
    store.initialize_schema()

    pipeline = CaseDocumentPipeline(store, embedding_service)

    start_time = time.time()
    total_chunks = 0
    success_count = 0
    fail_count = 0
    skip_count = 0

    for i, path in enumerate(files):
        logger.info(f"[{i+1}/{len(files)}] Processing: {path.name}")
        try:
            result = pipeline.ingest_file(str(path), args.client_id, case_id=args.case_id)
        except (IngestionError, ValueError) as e:
            fail_count += 1
            logger.error(f"  FAILED: {e}")
            continue

        if result.is_duplicate:
            skip_count += 1
            logger.info(f"  -> duplicate of {result.duplicate_of}, skipped")
            continue

        total_chunks += result.chunks
        success_count += 1
        logger.info(f"  -> {result.document_type}, {result.chunks} chunks ({result.embedded} embedded)")

    run = None
    if args.analyze:
        logger.info("Running case analysis...")
        run = pipeline.analyze_client(args.client_id, case_id=args.case_id)

    elapsed = time.time() - start_time
    store.close()

    # Summary
    print("\n" + "=" * 60)
    print("INGESTION COMPLETE")
    print("=" * 60)
    print(f"Files processed: {success_count}/{len(files)} ({fail_count} failed, {skip_count} duplicates)")
    print(f"Total chunks:    {total_chunks}")
    print(f"Time elapsed:    {elapsed:.1f}s")
    print(f"Client ID:       {args.client_id}")
    if run is not None:
        strength = run.case_strength or {}
        print(f"Analyzed:        {run.documents_analyzed} documents ({run.failures} failures)")
        print(f"Case strength:   {strength.get('overall_strength', 0):.0%}")
        print(
            f"Settlement:      ${strength.get('settlement_range_low', 0):,.0f}"
            f" - ${strength.get('settlement_range_high', 0):,.0f}"
        )
    print("=" * 60)


if __name__ == "__main__":
    main()
