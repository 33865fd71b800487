"""SpiceNet schematic netlist core: wire graph, net resolution, netlist synthesis and the ngspice channel."""
