class TrackitError(Exception):
    pass


class ValidationError(TrackitError):
    pass


class NotFoundError(TrackitError):
    def __init__(self, habit_id: str):
        super().__init__(f"Habit {habit_id} not found.")
        self.habit_id = habit_id


class FutureDateError(TrackitError):
    def __init__(self, day_key: str, today_key: str):
        super().__init__(f"Cannot complete a habit on {day_key}: it is after {today_key}.")
        self.day_key = day_key
        self.today_key = today_key


class SyncTransportError(TrackitError):
    pass


class StorageCorruptionError(TrackitError):
    pass
