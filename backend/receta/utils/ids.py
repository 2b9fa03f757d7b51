import secrets
import time


#------This Function builds a unique record id---------
def new_id(prefix: str) -> str:
    # time_ns alone repeats when records are generated in a tight loop
    return f"{prefix}_{time.time_ns()}_{secrets.token_hex(5)}"
