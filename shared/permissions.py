# Tên quyền dùng chung giữa các service (claim "permissions" trong JWT)
USER_CREATE = "user:create"
USER_READ = "user:read"
USER_WRITE = "user:write"
USER_DELETE = "user:delete"

RESTAURANT_READ = "restaurant:read"
RESTAURANT_REQUEST = "restaurant:request"
RESTAURANT_WRITE = "restaurant:write"
RESTAURANT_APPROVE = "restaurant:approve"
RESTAURANT_DELETE = "restaurant:delete"

ORDER_READ = "order:read"
ORDER_WRITE = "order:write"
# Đổi trạng thái đơn bằng tay (chỉ ADMIN)
ORDER_MANAGE = "order:manage"

SHIPPING_READ = "shipping:read"
SHIPPING_WRITE = "shipping:write"

ALL = [
    USER_CREATE, USER_READ, USER_WRITE, USER_DELETE,
    RESTAURANT_READ, RESTAURANT_REQUEST, RESTAURANT_WRITE, RESTAURANT_APPROVE, RESTAURANT_DELETE,
    ORDER_READ, ORDER_WRITE, ORDER_MANAGE,
    SHIPPING_READ, SHIPPING_WRITE,
]

# Quyền mặc định của từng role khi khởi tạo
DEFAULT_ROLES = {
    "ADMIN": ALL,
    "USER": [RESTAURANT_READ, RESTAURANT_REQUEST, ORDER_READ, ORDER_WRITE],
    "SHIPPER": [RESTAURANT_READ, ORDER_READ, SHIPPING_READ, SHIPPING_WRITE],
}
DEFAULT_ROLE = "USER"
