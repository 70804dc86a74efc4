#!/usr/bin/env python3
"""
MongoDB Database Initialization Script for ReelStream.

This script creates the users and videos collections with JSON schema
validation and the indexes the API relies on. It is idempotent: running it
again updates validation rules and skips indexes that already exist.

Usage:
    python init_db.py [options]

Options:
    --drop          Drop existing collections before creation (WARNING: destructive)
    --verbose       Display detailed operation logs
    --help          Show this help message and exit

Environment Variables:
    MONGODB_URI         MongoDB connection URI (required)
    MONGODB_DB_NAME     Database name (default: reelstream)
"""

import argparse
import os
import sys
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from dotenv import load_dotenv
from pymongo import ASCENDING, DESCENDING, IndexModel, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import (
    CollectionInvalid,
    ConnectionFailure,
    OperationFailure,
    PyMongoError,
    ServerSelectionTimeoutError,
)

# Constants
DEFAULT_DATABASE_NAME = "reelstream"
CONNECTION_TIMEOUT_MS = 5000

# Collection names
COLLECTIONS = {
    "users": "users",
    "videos": "videos",
}


class DatabaseInitializer:
    """
    MongoDB database initializer for ReelStream.

    Handles creation of the users and videos collections, their validation
    rules and indexes, and a final verification pass.
    """

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self.client: Optional[MongoClient] = None
        self.db: Optional[Database] = None
        self.database_name = DEFAULT_DATABASE_NAME
        self._error_count = 0
        self._success_count = 0

    def log(self, message: str, level: str = "INFO") -> None:
        """
        Log a message with timestamp.

        Args:
            message: Message to log.
            level: Log level (INFO, WARNING, ERROR, DEBUG).
        """
        if level == "DEBUG" and not self.verbose:
            return
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
        print(f"[{timestamp}] [{level}] {message}")

    def connect(self) -> bool:
        """
        Establish connection to MongoDB server with retry logic.

        Returns:
            True if connection successful, False otherwise.
        """
        load_dotenv()

        mongodb_uri = os.getenv("MONGODB_URI")
        if not mongodb_uri:
            self.log("Please define the MONGODB_URI environment variable", "ERROR")
            return False

        self.database_name = os.getenv("MONGODB_DB_NAME", DEFAULT_DATABASE_NAME)
        self.log(f"Connecting to MongoDB at {self._mask_uri(mongodb_uri)}...")

        max_retries = 3
        retry_delay = 2

        for attempt in range(max_retries):
            try:
                self.client = MongoClient(
                    mongodb_uri,
                    serverSelectionTimeoutMS=CONNECTION_TIMEOUT_MS,
                    connectTimeoutMS=CONNECTION_TIMEOUT_MS,
                )
                self.client.admin.command("ping")
                self.db = self.client[self.database_name]

                self.log("Successfully connected to MongoDB server", "INFO")
                self.log(f"Using database: {self.database_name}", "DEBUG")
                return True

            except ServerSelectionTimeoutError as e:
                self.log(f"Server selection timeout: {e}", "ERROR")
                self.log("Ensure MongoDB is running and accessible at the configured URI.", "ERROR")
                return False

            except ConnectionFailure as e:
                self.log(f"Connection attempt {attempt + 1}/{max_retries} failed: {e}", "WARNING")
                if attempt < max_retries - 1:
                    self.log(f"Retrying in {retry_delay} seconds...", "INFO")
                    time.sleep(retry_delay)
                    retry_delay *= 2

        self.log("Failed to connect after all retry attempts", "ERROR")
        return False

    def _mask_uri(self, uri: str) -> str:
        """Mask credentials in a MongoDB URI for logging."""
        if "@" in uri:
            protocol_end = uri.find("://") + 3
            at_pos = uri.rfind("@")
            return f"{uri[:protocol_end]}***:***{uri[at_pos:]}"
        return uri

    def drop_collections(self) -> bool:
        """
        Drop all ReelStream collections (destructive operation).

        Returns:
            True if all collections dropped successfully, False otherwise.
        """
        self.log("=" * 60, "WARNING")
        self.log("DROPPING ALL COLLECTIONS - THIS IS DESTRUCTIVE!", "WARNING")
        self.log("=" * 60, "WARNING")

        try:
            existing = self.db.list_collection_names()
            for collection_name in COLLECTIONS.values():
                if collection_name in existing:
                    self.db[collection_name].drop()
                    self.log(f"Dropped collection: {collection_name}", "WARNING")
                else:
                    self.log(f"Collection {collection_name} does not exist, skipping", "DEBUG")
            return True

        except PyMongoError as e:
            self.log(f"Error dropping collections: {e}", "ERROR")
            return False

    def create_collection_with_validation(
        self,
        name: str,
        validator: Dict[str, Any],
        validation_level: str = "moderate",
        validation_action: str = "error",
    ) -> Collection:
        """
        Create a collection with JSON schema validation, or update the rules
        on an existing one.
        """
        if name in self.db.list_collection_names():
            self.log(f"Collection {name} already exists, updating validation rules", "DEBUG")
            self.db.command(
                "collMod",
                name,
                validator=validator,
                validationLevel=validation_level,
                validationAction=validation_action,
            )
            return self.db[name]

        try:
            self.db.create_collection(
                name,
                validator=validator,
                validationLevel=validation_level,
                validationAction=validation_action,
            )
            self.log(f"Created collection: {name}", "INFO")
        except CollectionInvalid as e:
            self.log(f"Collection {name} already exists: {e}", "DEBUG")

        return self.db[name]

    def create_users_collection(self) -> bool:
        """
        Create users collection with schema validation and indexes.

        The unique email index is what makes concurrent registrations of one
        address fail instead of creating two accounts.
        """
        self.log("Creating users collection...", "INFO")

        validator = {
            "$jsonSchema": {
                "bsonType": "object",
                "required": ["email", "hashed_password", "created_at"],
                "properties": {
                    "email": {
                        "bsonType": "string",
                        "maxLength": 254,
                        "description": "Normalised email address (required)",
                    },
                    "hashed_password": {
                        "bsonType": "string",
                        "description": "Bcrypt password hash (required)",
                    },
                    "is_active": {
                        "bsonType": "bool",
                        "description": "Inactive accounts cannot sign in",
                    },
                    "created_at": {"bsonType": "date"},
                    "updated_at": {"bsonType": "date"},
                    "last_login": {"bsonType": ["date", "null"]},
                },
            }
        }

        indexes = [
            IndexModel([("email", ASCENDING)], unique=True, name="email_unique_idx"),
            IndexModel([("created_at", DESCENDING)], name="created_at_idx"),
        ]
        return self._create_collection(COLLECTIONS["users"], validator, indexes)

    def create_videos_collection(self) -> bool:
        """Create videos collection with schema validation and indexes."""
        self.log("Creating videos collection...", "INFO")

        validator = {
            "$jsonSchema": {
                "bsonType": "object",
                "required": [
                    "title",
                    "description",
                    "video_url",
                    "thumbnail_url",
                    "user_id",
                    "created_at",
                ],
                "properties": {
                    "title": {"bsonType": "string", "minLength": 1, "maxLength": 200},
                    "description": {"bsonType": "string", "minLength": 1, "maxLength": 5000},
                    "video_url": {"bsonType": "string", "maxLength": 2048},
                    "thumbnail_url": {"bsonType": "string", "maxLength": 2048},
                    "controls": {"bsonType": "bool"},
                    "transformation": {
                        "bsonType": "object",
                        "properties": {
                            "height": {"bsonType": ["int", "long"], "minimum": 1},
                            "width": {"bsonType": ["int", "long"], "minimum": 1},
                            "quality": {"bsonType": ["int", "long"], "minimum": 1, "maximum": 100},
                        },
                    },
                    "user_id": {"bsonType": "string", "description": "Owner user ID"},
                    "created_at": {"bsonType": "date"},
                    "updated_at": {"bsonType": "date"},
                },
            }
        }

        indexes = [
            IndexModel([("created_at", DESCENDING)], name="created_at_idx"),
            IndexModel([("user_id", ASCENDING), ("created_at", DESCENDING)], name="user_created_idx"),
        ]
        return self._create_collection(COLLECTIONS["videos"], validator, indexes)

    def _create_collection(
        self, name: str, validator: Dict[str, Any], indexes: List[IndexModel]
    ) -> bool:
        try:
            collection = self.create_collection_with_validation(name, validator)
            self._create_indexes_safely(collection, indexes)
            self._success_count += 1
            return True

        except PyMongoError as e:
            self.log(f"Error creating {name} collection: {e}", "ERROR")
            self._error_count += 1
            return False

    def _create_indexes_safely(self, collection: Collection, indexes: List[IndexModel]) -> None:
        """Create indexes one by one, skipping those that already exist."""
        existing_indexes = collection.index_information()

        for index in indexes:
            index_name = index.document.get("name", "unnamed_index")
            if index_name in existing_indexes:
                self.log(f"  Index '{index_name}' already exists, skipping", "DEBUG")
                continue

            try:
                collection.create_indexes([index])
                self.log(f"  Created index: {index_name}", "DEBUG")
            except OperationFailure as e:
                if "already exists" in str(e).lower():
                    self.log(f"  Index already exists: {index_name}", "DEBUG")
                else:
                    raise

    def verify_initialization(self) -> bool:
        """
        Verify all collections and indexes were created successfully.

        Returns:
            True if verification passed, False otherwise.
        """
        self.log("=" * 60, "INFO")
        self.log("VERIFICATION SUMMARY", "INFO")
        self.log("=" * 60, "INFO")

        all_valid = True

        try:
            collections = self.db.list_collection_names()
            self.log(f"Collections in database '{self.database_name}':", "INFO")

            for collection_name in COLLECTIONS.values():
                if collection_name not in collections:
                    self.log(f"  ✗ {collection_name}: MISSING", "ERROR")
                    all_valid = False
                    continue

                count = self.db[collection_name].count_documents({})
                indexes = self.db[collection_name].index_information()
                self.log(
                    f"  ✓ {collection_name}: {count} documents, {len(indexes) - 1} custom indexes",
                    "INFO",
                )
                for idx_name, idx_info in indexes.items():
                    if idx_name != "_id_":
                        self.log(f"    - {idx_name}: {idx_info.get('key', {})}", "DEBUG")

            if self._test_unique_email():
                self.log("  ✓ Duplicate emails are rejected", "INFO")
            else:
                self.log("  ✗ Duplicate email was accepted", "ERROR")
                all_valid = False

            self.log(
                f"Operations Summary: {self._success_count} successful, {self._error_count} failed",
                "INFO",
            )
            return all_valid

        except PyMongoError as e:
            self.log(f"Verification error: {e}", "ERROR")
            return False

    def _test_unique_email(self) -> bool:
        """Insert the same probe email twice and check the second insert fails."""
        users = self.db[COLLECTIONS["users"]]
        email = f"init-probe-{ObjectId()}@reelstream.invalid"
        now = datetime.now(timezone.utc)
        probe = {"email": email, "hashed_password": "x", "is_active": False, "created_at": now}

        users.insert_one(dict(probe))
        try:
            users.insert_one(dict(probe))
            return False
        except OperationFailure:
            # DuplicateKeyError is an OperationFailure
            return True
        finally:
            users.delete_many({"email": email})

    def close(self) -> None:
        """Close the MongoDB connection."""
        if self.client:
            self.client.close()
            self.log("MongoDB connection closed", "DEBUG")


def parse_arguments() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Initialize MongoDB database for ReelStream",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python init_db.py                  # Initialize database with defaults
  python init_db.py --verbose        # Initialize with detailed logging
  python init_db.py --drop           # Drop existing collections first (DESTRUCTIVE)

Environment Variables:
  MONGODB_URI          MongoDB connection URI (required)
  MONGODB_DB_NAME      Database name (default: reelstream)
        """,
    )

    parser.add_argument(
        "--drop",
        action="store_true",
        help="Drop existing collections before creation (WARNING: destructive operation)",
    )

    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Display detailed operation logs"
    )

    return parser.parse_args()


def main() -> int:
    """
    Main entry point for the database initialization script.

    Returns:
        Exit code (0 for success, 1 for failure).
    """
    args = parse_arguments()

    print("\n" + "=" * 60)
    print("ReelStream - MongoDB Database Initialization")
    print("=" * 60 + "\n")

    initializer = DatabaseInitializer(verbose=args.verbose)

    try:
        if not initializer.connect():
            print("\nFailed to connect to MongoDB. Exiting.")
            return 1

        if args.drop:
            confirmation = input(
                "\nWARNING: This will DELETE ALL DATA in ReelStream collections.\n"
                "Type 'yes' to confirm: "
            )
            if confirmation.lower() != "yes":
                print("Operation cancelled.")
                return 0

            if not initializer.drop_collections():
                print("\nFailed to drop collections. Exiting.")
                return 1

        print("\nCreating collections and indexes...\n")

        success = initializer.create_users_collection()
        success = initializer.create_videos_collection() and success

        if success and initializer.verify_initialization():
            return 0
        return 1

    except KeyboardInterrupt:
        print("\n\nInitialization interrupted by user.")
        return 130

    finally:
        initializer.close()


if __name__ == "__main__":
    sys.exit(main())
