"""
VR API路由 - 服务端主动推送（不占用 WebSocket 连接）
"""
from fastapi import APIRouter, Depends

from application.dtos.vr import ValueDTO, TopicPublishDTO, DeliveryDTO, ClientListDTO
from application.services.realtime_service import RealtimeService
from api.dependencies import get_realtime_service
from core.response import success_response, Response as ApiResponse

router = APIRouter(
    prefix="/vr",
    tags=["VR"]
)


def _delivered(count: int, message: str) -> ApiResponse:
    return success_response(data=DeliveryDTO(delivered=count), message=message)


@router.post("/table", summary="推送桌号/流量", response_model=ApiResponse[DeliveryDTO])
async def send_table(body: ValueDTO, rt: RealtimeService = Depends(get_realtime_service)):
    return _delivered(await rt.send_table(body.value), "Table update sent")


@router.post("/speed", summary="推送速度", response_model=ApiResponse[DeliveryDTO])
async def send_speed(body: ValueDTO, rt: RealtimeService = Depends(get_realtime_service)):
    """
    推送传送带速度

    - **value**: 0.2 到 1 之间的数字（含边界）
    """
    return _delivered(await rt.send_speed(body.value), "Speed update sent")


@router.post("/game-start", summary="推送游戏开始", response_model=ApiResponse[DeliveryDTO])
async def send_game_start(body: ValueDTO, rt: RealtimeService = Depends(get_realtime_service)):
    return _delivered(await rt.send_game_start(body.value), "Game start sent")


@router.post("/products", summary="推送产品类型", response_model=ApiResponse[DeliveryDTO])
async def send_products(body: ValueDTO, rt: RealtimeService = Depends(get_realtime_service)):
    return _delivered(await rt.send_products(body.value), "Products update sent")


@router.post("/sorted-objects", summary="推送已分拣物品", response_model=ApiResponse[DeliveryDTO])
async def send_sorted_objects(body: ValueDTO, rt: RealtimeService = Depends(get_realtime_service)):
    return _delivered(await rt.send_sorted_objects(body.value), "Sorted objects sent")


@router.post("/unsorted-objects", summary="推送未分拣物品", response_model=ApiResponse[DeliveryDTO])
async def send_unsorted_objects(body: ValueDTO, rt: RealtimeService = Depends(get_realtime_service)):
    return _delivered(await rt.send_unsorted_objects(body.value), "Unsorted objects sent")


@router.post("/errors", summary="推送错误计数", response_model=ApiResponse[DeliveryDTO])
async def send_errors(body: ValueDTO, rt: RealtimeService = Depends(get_realtime_service)):
    """
    推送错误计数

    - **value**: 非负数
    """
    return _delivered(await rt.send_errors(body.value), "Errors update sent")


@router.post("/pickup-from-zone", summary="推送区域拾取", response_model=ApiResponse[DeliveryDTO])
async def send_pickup_from_zone(body: ValueDTO, rt: RealtimeService = Depends(get_realtime_service)):
    """
    推送从某区域拾取物品

    - **value**: red / green / yellow
    """
    return _delivered(await rt.send_pickup_from_zone(body.value), "Zone pickup sent")


@router.post("/topics/{topic}", summary="按主题推送", response_model=ApiResponse[DeliveryDTO])
async def publish_to_topic(topic: str, body: TopicPublishDTO, rt: RealtimeService = Depends(get_realtime_service)):
    return _delivered(await rt.send_to_topic(topic, body.type, body.data), "Topic message sent")


@router.get("/clients", summary="在线客户端", response_model=ApiResponse[ClientListDTO])
async def list_clients(rt: RealtimeService = Depends(get_realtime_service)):
    clients = await rt.list_clients()
    return success_response(data=ClientListDTO(count=len(clients), clients=clients))
