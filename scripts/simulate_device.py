import argparse
import asyncio
import sys
from pathlib import Path

# Add the project root directory to the Python path
project_root = Path(__file__).resolve().parent.parent
sys.path.append(str(project_root))

from device_store.core.config import settings
from device_store.core.exceptions import DeviceStoreException
from device_store.core.log_config import logger
from device_store.database.document_store import SqlDocumentStore
from device_store.database.session import async_session, engine, initialize_db
from device_store.providers.local import HostDeviceInfo, LocalIdentityProvider, LocalPushService, StaticPermissionHost
from device_store.services.device_registry import DeviceRegistry
from device_store.services.subscription_controller import SubscriptionController

async def main(user_id: str, tokens: list[str], keep: bool):
    await initialize_db()
    registry = DeviceRegistry(SqlDocumentStore(async_session, settings.collection_path, settings.transaction_max_attempts))
    identity = LocalIdentityProvider()
    push = LocalPushService(token=tokens[0])
    controller = SubscriptionController(registry, identity, push, StaticPermissionHost(), HostDeviceInfo())

    try:
        await controller.subscribe()
        identity.sign_in(user_id)
        for token in tokens[1:]:
            push.rotate(token)
        await controller.wait_idle()
        logger.info(f"Registered: {await registry.list_devices(user_id)}")

        if not keep:
            await controller.sign_out()
            identity.sign_out()
            logger.info(f"After sign out: {await registry.list_devices(user_id)}")
    except DeviceStoreException as e:
        logger.error(f"Simulation failed: {e.to_dict()}")
    finally:
        controller.unsubscribe()
        await controller.wait_idle()
        await engine.dispose()

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Register this machine as a device of a user.")
    parser.add_argument("user_id")
    parser.add_argument("tokens", nargs="+", help="push tokens, delivered in order")
    parser.add_argument("--keep", action="store_true", help="leave the device registered")
    args = parser.parse_args()
    asyncio.run(main(args.user_id, args.tokens, args.keep))
