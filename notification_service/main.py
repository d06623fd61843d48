import logging
from typing import Dict, List

import uvicorn
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from shared.log import setup_logging

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# QUẢN LÝ KẾT NỐI
class ConnectionManager:
    def __init__(self):
        # Lưu danh sách socket theo user_id
        self.active_connections: Dict[str, List[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, user_id: str):
        await websocket.accept()
        self.active_connections.setdefault(user_id, []).append(websocket)
        logger.info("✅ User %s connected via WebSocket", user_id)

    def disconnect(self, websocket: WebSocket, user_id: str):
        sockets = self.active_connections.get(user_id, [])
        if websocket in sockets:
            sockets.remove(websocket)
            logger.info("❌ User %s disconnected", user_id)
        if not sockets:
            self.active_connections.pop(user_id, None)

    async def send_message(self, message: str, user_id: str) -> int:
        """Gửi tới mọi socket của user, trả về số socket nhận được."""
        delivered = 0
        for connection in list(self.active_connections.get(user_id, [])):
            try:
                await connection.send_text(message)
                delivered += 1
            except (WebSocketDisconnect, RuntimeError) as e:
                logger.warning("Dropping dead socket of user %s: %s", user_id, e)
                self.disconnect(connection, user_id)
        return delivered


manager = ConnectionManager()


# 1. API WebSocket cho Frontend kết nối
@app.websocket("/ws/{user_id}")
async def websocket_endpoint(websocket: WebSocket, user_id: str):
    await manager.connect(websocket, user_id)
    try:
        while True:
            await websocket.receive_text()  # Giữ kết nối
    except WebSocketDisconnect:
        manager.disconnect(websocket, user_id)


# 2. API cho các service khác gọi sang
class NotifyPayload(BaseModel):
    user_id: str
    message: str


@app.post("/notify")
async def notify_user(payload: NotifyPayload):
    delivered = await manager.send_message(payload.message, payload.user_id)
    return {"status": "sent", "delivered": delivered}


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8006)
