from .cli import peercall

peercall(prog_name="peercall")
