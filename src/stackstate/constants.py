import math

# Base parameters (mhp, mmp, atk, def, mat, mdf, agi, luk).
PARAM_MHP = 0
PARAM_MMP = 1
PARAM_ATK = 2
PARAM_DEF = 3
PARAM_MAT = 4
PARAM_MDF = 5
PARAM_AGI = 6
PARAM_LUK = 7
PARAM_COUNT = 8

# Extra parameters (hit, eva, cri, cev, mev, mrf, cnt, hrg, mrg, trg).
XPARAM_COUNT = 10

# Special parameters (tgr, grd, rec, pha, mcr, tcr, pdr, mdr, fdr, exr).
SPARAM_COUNT = 10

# Parameter clamp. Max HP never drops below 1; nothing is capped from above
# unless a battler overrides its limits.
PARAM_MIN = (1, 0, 0, 0, 0, 0, 0, 0)
PARAM_MAX = (math.inf,) * PARAM_COUNT

# Each buff/debuff level moves a parameter by a quarter.
BUFF_RATE_STEP = 0.25
MAX_BUFF_LEVEL = 2

DEFAULT_MAX_TP = 100

# Item damage types.
DAMAGE_NONE = 0
DAMAGE_HP = 1
DAMAGE_MP = 2
RECOVER_HP = 3
RECOVER_MP = 4
DRAIN_HP = 5
DRAIN_MP = 6

HP_DAMAGE_TYPES = (DAMAGE_HP, DRAIN_HP)
MP_DAMAGE_TYPES = (DAMAGE_MP, DRAIN_MP)

# Element id meaning "use the attacker's attack elements".
ELEMENT_NORMAL_ATTACK = -1

# Status auto-removal timing.
AUTO_REMOVAL_NONE = 0
AUTO_REMOVAL_ACTION_END = 1
AUTO_REMOVAL_TURN_END = 2

RESOURCE_HP = "hp"
RESOURCE_MP = "mp"
RESOURCE_TP = "tp"
RESOURCE_KINDS = (RESOURCE_HP, RESOURCE_MP, RESOURCE_TP)
