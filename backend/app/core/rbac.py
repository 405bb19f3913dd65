import enum


class Role(str, enum.Enum):
    admin = "admin"
    staff = "staff"
