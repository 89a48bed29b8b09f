# file: app/api/v1/relay.py

import logging
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from app.services.relay_hub import RelayHub, get_relay_hub

router = APIRouter()
logger = logging.getLogger("relay")


@router.websocket("/ws")
async def relay_socket(websocket: WebSocket, hub: RelayHub = Depends(get_relay_hub)):
    await websocket.accept()
    hub.connect(websocket)

    try:
        while True:
            raw = await websocket.receive_json()
            await hub.dispatch(websocket, raw)
    except WebSocketDisconnect:
        pass
    except ValueError as e:
        # non-JSON frame
        logger.warning(f"[Relay] Closing connection after bad frame: {e}")
        await websocket.close(code=1003)
    finally:
        await hub.disconnect(websocket)
