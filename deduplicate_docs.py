
import sys
import logging

from dotenv import load_dotenv

from execution.casefile_rag.vector_store import VectorStore
from execution.casefile_rag.pipeline import CaseDocumentPipeline
from execution.casefile_rag.dedup import find_duplicate_groups

load_dotenv()
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEMO_CLIENT_ID = "00000000-0000-0000-0000-000000000001"


def deduplicate_client(client_id: str):
    store = VectorStore()
    store.connect()

    try:
        # 1. Documents with the same content hash: keep the NEWEST one
        documents = [d for d in store.list_documents(client_id=client_id) if d.get("content_hash")]
        _, remove = find_duplicate_groups(documents, key=lambda d: d["content_hash"])

        if not remove:
            logger.info("No duplicate documents found!")
        else:
            logger.info(f"Found {len(remove)} duplicate/old documents to remove.")
            titles = {str(d["id"]): d["title"] for d in documents}
            deleted = 0
            for doc_id in remove:
                logger.info(f"Deleting old version of: {titles.get(str(doc_id))} (ID: {doc_id})")
                if store.delete_document(str(doc_id), client_id=client_id):
                    deleted += 1
            logger.info(f"Successfully removed {deleted} old documents.")

        # 2. Analysis records superseded by an identical newer one
        pipeline = CaseDocumentPipeline(store, embedding_service=None)
        removed = pipeline.cleanup_duplicate_analyses(client_id)
        logger.info(f"Removed {removed} duplicate analyses.")

    except Exception as e:
        logger.error(f"Error during deduplication: {e}")
    finally:
        store.close()


if __name__ == "__main__":
    deduplicate_client(sys.argv[1] if len(sys.argv) > 1 else DEMO_CLIENT_ID)
