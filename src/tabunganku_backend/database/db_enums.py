'''
Static enums mirroring the database ENUM types.
'''
import enum


class ListableEnum(str, enum.Enum):
    """A custom Enum base class that can list all member values."""
    @classmethod
    def get_all_names(cls) -> list[str]:
        return [member.value for member in cls]


class UserRole(ListableEnum):
    ADMIN = 'admin'
    TEACHER = 'teacher'
    PARENT = 'parent'


class TransactionType(ListableEnum):
    DEPOSIT = 'deposit'
    WITHDRAWAL = 'withdrawal'


class SavingFrequency(ListableEnum):
    DAILY = 'daily'
    WEEKLY = 'weekly'
    MONTHLY = 'monthly'


class DayOfWeek(ListableEnum):
    # Ordered like datetime.weekday(): Monday == 0
    MONDAY = 'Monday'
    TUESDAY = 'Tuesday'
    WEDNESDAY = 'Wednesday'
    THURSDAY = 'Thursday'
    FRIDAY = 'Friday'
    SATURDAY = 'Saturday'
    SUNDAY = 'Sunday'

    @property
    def weekday_index(self) -> int:
        return list(DayOfWeek).index(self)

    @property
    def label_id(self) -> str:
        """Indonesian day name, as shown to users."""
        return DAY_LABELS_ID[self]


DAY_LABELS_ID = {
    DayOfWeek.MONDAY: "Senin",
    DayOfWeek.TUESDAY: "Selasa",
    DayOfWeek.WEDNESDAY: "Rabu",
    DayOfWeek.THURSDAY: "Kamis",
    DayOfWeek.FRIDAY: "Jumat",
    DayOfWeek.SATURDAY: "Sabtu",
    DayOfWeek.SUNDAY: "Minggu",
}
