"""
Cosmos DB Provisioning Script for the Clinical Scheduling Service.

Creates the scheduling database and containers using AzureCliCredential.

Usage:
    python scripts/create_cosmos_containers.py

Environment:
    COSMOS_ENDPOINT - Override the default Cosmos DB endpoint
    COSMOS_DATABASE - Override the default database name

Containers Created:
    - Scheduling_Appointments          (partition: /id)
    - Scheduling_ProfessionalSchedules (partition: /professional_id)
"""

import logging
import sys
from pathlib import Path

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from azure.cosmos import CosmosClient, PartitionKey
from azure.cosmos.exceptions import CosmosHttpResponseError, CosmosResourceExistsError
from azure.identity import AzureCliCredential

# Import configuration from shared module
from shared.cosmos_config import (
    COSMOS_ENDPOINT,
    DATABASE_NAME,
    SCHEDULING_CONTAINERS,
)

# Configure logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


def create_containers(database) -> int:
    """Create every scheduling container that does not exist yet."""
    created = 0
    for key, (container_name, partition_key) in SCHEDULING_CONTAINERS.items():
        try:
            database.create_container(
                id=container_name,
                partition_key=PartitionKey(path=partition_key),
            )
            logger.info(f"  {container_name} created (partition: {partition_key})")
            created += 1
        except CosmosResourceExistsError:
            logger.info(f"  {container_name} already exists")
    return created


def main():
    """Main function to provision the scheduling database and containers."""
    logger.info("=" * 60)
    logger.info("Clinical Scheduling - Cosmos DB Provisioning Script")
    logger.info("=" * 60)
    logger.info(f"Endpoint: {COSMOS_ENDPOINT}")
    logger.info(f"Database: {DATABASE_NAME}")
    logger.info("Authentication: AzureCliCredential")
    logger.info("=" * 60)

    logger.info("\nAuthenticating with Azure CLI...")
    credential = AzureCliCredential()
    client = CosmosClient(COSMOS_ENDPOINT, credential=credential)

    try:
        database = client.create_database_if_not_exists(id=DATABASE_NAME)
        logger.info(f"Database '{DATABASE_NAME}' ready")
    except CosmosHttpResponseError as e:
        logger.error(f"Database '{DATABASE_NAME}' could not be created or accessed: {e}")
        logger.error("Create the database manually or check RBAC permissions")
        return

    logger.info("\n--- Scheduling Containers ---")
    try:
        created = create_containers(database)
    except CosmosHttpResponseError as e:
        logger.error(f"Container creation failed: {e}")
        logger.error("Data-plane RBAC cannot create containers; use the Azure CLI commands below")
        created = 0

    logger.info("\n" + "=" * 60)
    logger.info(f"COMPLETE: {created} new containers, {len(SCHEDULING_CONTAINERS)} expected")
    logger.info("=" * 60)

    logger.info("\n--- Azure CLI Commands to Create All Containers ---")
    for key, (container_name, partition_key) in SCHEDULING_CONTAINERS.items():
        logger.info(
            f'az cosmosdb sql container create --account-name "<account>" '
            f'--database-name "{DATABASE_NAME}" --name "{container_name}" '
            f'--partition-key-path "{partition_key}" --resource-group "<resource-group>"'
        )


if __name__ == "__main__":
    main()
