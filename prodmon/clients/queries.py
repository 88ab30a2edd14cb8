"""
GraphQL documents for the AppSync production API
"""

# Caller's user id (Cognito sub)
Q_ME = """
  query Me {
    me
  }
"""

Q_LIST_MY_DEVICES = """
  query ListMyDevices {
    listMyDevices {
      deviceId
      nickname
    }
  }
"""

M_REGISTER_DEVICE = """
  mutation RegisterDevice($deviceId: String!, $nickname: String!) {
    registerDevice(deviceId: $deviceId, nickname: $nickname) {
      deviceId
      nickname
    }
  }
"""

# Deletes only within the caller's userId partition
M_REMOVE_DEVICE = """
  mutation RemoveDevice($deviceId: String!) {
    removeDevice(deviceId: $deviceId)
  }
"""

Q_GET_DEVICE_LAST = """
  query GetDeviceLast($deviceId: String!) {
    getDeviceLast(deviceId: $deviceId) {
      deviceId
      lastServerTs
      lastTotal
      lastReason
    }
  }
"""

Q_DAILY = """
  query Daily($deviceId: String!, $date: String!) {
    getDailySeries(deviceId: $deviceId, date: $date) {
      x
      y
    }
  }
"""

Q_MONTHLY = """
  query Monthly($deviceId: String!, $yearMonth: String!) {
    getMonthlySeries(deviceId: $deviceId, yearMonth: $yearMonth) {
      x
      y
    }
  }
"""

Q_YEARLY = """
  query Yearly($deviceId: String!, $year: String!) {
    getYearlySeries(deviceId: $deviceId, year: $year) {
      x
      y
    }
  }
"""

Q_ADMIN_LIST_DEVICE_LAST = """
  query AdminListDeviceLast($limit: Int) {
    adminListDeviceLast(limit: $limit) {
      deviceId
      lastTotal
      lastServerTs
      lastReason
      lastDelta
      boot
      seq
      swVersion
      plcHex
      espHex
    }
  }
"""

Q_GET_DEVICE_EVENTS = """
  query GetDeviceEvents($deviceId: String!, $limit: Int) {
    getDeviceEvents(deviceId: $deviceId, limit: $limit) {
      deviceId
      eventKey
      eventType
      ts
      detail
    }
  }
"""

M_ADMIN_TRIGGER_OTA = """
  mutation AdminTriggerOta($deviceId: String!) {
    adminTriggerOta(deviceId: $deviceId)
  }
"""

# (query, result field, variable name) per chart tab
SERIES_QUERIES = {
    "day": (Q_DAILY, "getDailySeries", "date"),
    "month": (Q_MONTHLY, "getMonthlySeries", "yearMonth"),
    "year": (Q_YEARLY, "getYearlySeries", "year"),
}
