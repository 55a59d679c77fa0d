
VERBOSE = 3

# root-to-tip regression
PERM_TEST = 10000          # number of permutations used for the p-value
PERM_BLOCK_SIZE = 1000     # permutations evaluated together in one matrix
MIN_TREE_LENGTH = 5.0      # total branch length below which lengths are likely per site
PREDICTION_ALPHA = 0.05    # two sided level of the strict clock prediction band

# root search
MTRY = 10                  # rooting attempts per mean branch length
ANNOTATION = 'unrec'       # per branch attribute kept on the right edge when rerooting
