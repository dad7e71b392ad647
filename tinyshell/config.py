"""Settings shared by the shell, the trace runner and the driver."""

# Seconds the driver waits for something before giving up.
DRIVER_TIMEOUT = 4

# Seconds a shell test job runs before timing out.
JOB_TIMEOUT = 4

# Trace files the driver uses for testing, in order.
TRACEFILES = tuple(f"trace{number:02d}.txt" for number in range(22))

ITERS = 2
MAXBUF = 1024
MAXARGS = 1024
MAXTRACES = 128
PROMPT = "eslab_tsh> "