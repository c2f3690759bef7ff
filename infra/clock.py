from datetime import datetime
from domain.ports import Clock

# hora local (naive), igual ao que aparece nas linhas e no CSV
class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now()
