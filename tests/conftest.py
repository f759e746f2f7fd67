# tests/conftest.py
import pytest

from gc_timeline.parser import GCLogParser


@pytest.fixture
def parser():
    return GCLogParser()


@pytest.fixture
def genz_log_content():
    """One minor cycle, one major cycle overlapping a second minor cycle, anomalies and a statistics sample."""
    return """[0.010s][info][gc,init] Initializing The Z Garbage Collector
[0.011s][info][gc,init] Version: 21.0.2+13-LTS (release)
[0.500s][info][gc          ] GC(0) Minor Collection (Allocation Rate)
[0.501s][info][gc,phases   ] GC(0) Young Pause Mark Start 0.012ms
[0.510s][info][gc,phases   ] GC(0) Young Concurrent Mark 8.500ms
[0.511s][info][gc,phases   ] GC(0) Young Pause Mark End 0.020ms
[0.512s][info][gc,phases   ] GC(0) Young Concurrent Mark Free 0.001ms
[0.515s][info][gc,phases   ] GC(0) Young Concurrent Reset Relocation Set 0.002ms
[0.518s][info][gc,phases   ] GC(0) Young Concurrent Select Relocation Set 2.100ms
[0.519s][info][gc,phases   ] GC(0) Young Pause Relocate Start 0.015ms
[0.530s][info][gc,phases   ] GC(0) Young Concurrent Relocate 10.400ms
[0.530s][info][gc,metaspace] GC(0) Metaspace: 1M used, 2M committed, 1088M reserved
[0.530s][info][gc,heap     ] GC(0)                  Mark Start          Mark End        Relocate Start      Relocate End
[0.530s][info][gc,heap     ] GC(0)  Capacity:     2048M (100%)       2048M (100%)       2048M (100%)       2100M (100%)
[0.530s][info][gc,heap     ] GC(0)      Used:      104M (5%)           96M (5%)           96M (5%)           88M (4%)
[0.530s][info][gc,heap     ] GC(0) Allocated:         -                 4M (0%)             6M (0%)             8M (0%)
[0.530s][info][gc,heap     ] GC(0) Reclaimed:         -                  -                 14M (1%)            16M (1%)
[0.531s][info][gc          ] GC(0) Minor Collection (Allocation Rate) 104M(5%)->88M(4%)
[0.800s][info][gc          ] Allocation Stall (main) 2.500ms
[1.000s][info][gc          ] GC(1) Major Collection (Proactive)
[1.002s][info][gc,phases   ] GC(1) Major Pause Mark Start 0.030ms
[1.050s][info][gc          ] GC(2) Minor Collection (Allocation Rate)
[1.051s][info][gc,phases   ] GC(2) Young Pause Mark Start 0.010ms
[1.080s][info][gc,phases   ] GC(1) Major Concurrent Mark 70.000ms
[1.090s][info][gc          ] GC(2) Minor Collection (Allocation Rate) 120M(6%)->90M(4%)
[1.150s][info][gc,phases   ] GC(1) Major Concurrent Process Non-Strong References 4.000ms
[1.200s][info][gc          ] GC(1) Major Collection (Proactive) 150M(7%)->100M(5%)
[2.000s][info][gc          ] Out Of Memory (GC Thread#3)
[3.000s][info][gc,stats    ] === Garbage Collection Statistics =======================================================
[3.000s][info][gc,stats    ]                                                              Last 10s              Last 10m              Last 10h                Total
[3.000s][info][gc,stats    ]                                                              Avg / Max             Avg / Max             Avg / Max             Avg / Max
[3.000s][info][gc,stats    ]   Collector: Garbage Collection Cycle                    46.474 / 46.474        40.100 / 50.200        40.100 / 50.200        40.100 / 50.200        ms
[3.000s][info][gc,stats    ]  Contention: Mark Segment Reset Contention                  0 / 0                 0 / 0                 0 / 0                 0 / 0           ops/s
[3.000s][info][gc,stats    ]      Memory: Allocation Rate                               85 / 210              85 / 210              85 / 210              85 / 210         MB/s
"""


@pytest.fixture
def genz_log_lines(genz_log_content):
    return genz_log_content.splitlines()


@pytest.fixture
def genz_log_file(tmp_path, genz_log_content):
    file = tmp_path / "gc.log"
    file.write_text(genz_log_content)
    return file
