# Schemas package
from .device import (
    DeviceSummary, DeviceRegisterRequest, DeviceLast, AdminDeviceLast, DeviceEvent,
    DeviceStatus, DeviceStatusResponse, BootstrapResponse,
)
from .series import Point, ChartPoint, ChartSeries, SeriesResponse, TABS
from .ota import ManifestInfo, OtaState, AdminDeviceRow, AdminDeviceListResponse

__all__ = [
    'DeviceSummary', 'DeviceRegisterRequest', 'DeviceLast', 'AdminDeviceLast', 'DeviceEvent',
    'DeviceStatus', 'DeviceStatusResponse', 'BootstrapResponse',
    'Point', 'ChartPoint', 'ChartSeries', 'SeriesResponse', 'TABS',
    'ManifestInfo', 'OtaState', 'AdminDeviceRow', 'AdminDeviceListResponse',
]
