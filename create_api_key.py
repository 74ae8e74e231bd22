#!/usr/bin/env python3
"""Create an API key for the Case File RAG system.

Usage: python create_api_key.py [client_id] [client_name]
"""

import sys

# Load .env
from dotenv import load_dotenv
load_dotenv()

from execution.casefile_rag.vector_store import VectorStore

# Demo client used by local development
DEMO_CLIENT_ID = "00000000-0000-0000-0000-000000000001"


def main():
    client_id = sys.argv[1] if len(sys.argv) > 1 else DEMO_CLIENT_ID
    client_name = sys.argv[2] if len(sys.argv) > 2 else "Demo Client"

    store = VectorStore()
    store.connect()

    try:
        store.initialize_schema()
        store.initialize_auth_schema()
        print("Schema initialized.")
    except Exception as e:
        print(f"Schema note: {e}")

    store.create_client(client_name, client_id=client_id)
    raw_key = store.create_api_key(client_id=client_id, name="dev-local")
    store.close()

    print("\n" + "=" * 50)
    print("API Key created successfully!")
    print("=" * 50)
    print(f"\n  Client: {client_id}")
    print(f"  {raw_key}\n")
    print("Save this key, it cannot be retrieved again.")
    print("=" * 50)


if __name__ == "__main__":
    main()
