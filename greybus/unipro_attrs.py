"""Bridge UniPro attribute identifiers and init status encoding."""

from __future__ import annotations

from enum import IntEnum
from typing import Tuple

TSB_T_REGACCCTRL_TESTONLY = 0x007F
TSB_DME_DDBL2_A = 0x6000
TSB_DME_DDBL2_B = 0x6001
TSB_DME_ES3_INIT_STATUS = 0x6101
TSB_MAILBOX = 0xA000
TSB_MAIL_RESET = 0x00
TSB_MAIL_READY_AP = 0x01
TSB_MAIL_READY_OTHER = 0x02
TSB_DME_LAYERENABLEREQ = 0xD000
TSB_LAYER_UNIPRO_EN = 0x01
TSB_DME_LAYERENABLECNF = 0xD000
TSB_LAYER_SUCCESS = 0x01
TSB_LAYER_FAILURE = 0x02
TSB_DME_RESETREQ = 0xD010
TSB_RESET_COLD = 0x01
TSB_RESET_WARM = 0x02
TSB_DME_RESETCNF = 0xD010
TSB_RESET_COMPLETED = 0x01
TSB_DME_ENDPOINTRESETREQ = 0xD011
TSB_DME_ENDPOINTRESETCNF = 0xD011
TSB_DME_ENDPOINTRESETIND = 0xD012
TSB_DME_LINKSTARTUPREQ = 0xD020
TSB_LINKUP_INITIATE = 0x01
TSB_DME_LINKSTARTUPCNF = 0xD020
TSB_LINKUP_SUCCESS = 0x01
TSB_LINKUP_FAIL = 0x02
TSB_DME_LINKSTARTUPIND = 0xD021
TSB_LINKUP_IND_FAIL = 0x00
TSB_LINKUP_IND_SUCCESS = 0x01
TSB_DME_LINKLOSTIND = 0xD022
TSB_DME_HIBERNATEENTERREQ = 0xD030
TSB_DME_HIBERNATEENTERCNF = 0xD030
TSB_DME_HIBERNATEENTERIND = 0xD031
TSB_DME_HIBERNATEEXITREQ = 0xD032
TSB_DME_HIBERNATEEXITCNF = 0xD032
TSB_DME_HIBERNATEEXITIND = 0xD033
TSB_DME_POWERMODEIND = 0xD040
TSB_DME_TESTMODEREQ = 0xD050
TSB_DME_TESTMODECNF = 0xD050
TSB_DME_TESTMODEIND = 0xD051
TSB_DME_ERRORPHYIND = 0xD060
TSB_DME_ERRORPAIND = 0xD061
TSB_DME_ERRORDIND = 0xD062
TSB_DME_ERRORNIND = 0xD063
TSB_DME_ERRORTIND = 0xD064
TSB_INTERRUPTENABLE = 0xD080
TSB_INTERRUPTSTATUS = 0xD081
TSB_INTERRUPTSTATUS_MAILBOX = 1 << 15
TSB_L2STATUS = 0xD082
TSB_POWERSTATE = 0xD083
TSB_TXBURSTCLOSUREDELAY = 0xD084
TSB_MPHYCFGUPDT = 0xD085
TSB_ADJUSTTRAILINGCLOCKS = 0xD086
TSB_SUPPRESSRREQ = 0xD087
TSB_L2TIMEOUT = 0xD088
TSB_MAXSEGMENTCONFIG = 0xD089
TSB_TBD = 0xD090
TSB_RBD = 0xD091
TSB_DEBUGTXBYTECOUNT = 0xD092
TSB_DEBUGRXBYTECOUNT = 0xD093
TSB_DEBUGINVALIDBYTEENABLE = 0xD094
TSB_DEBUGLINKSTARTUP = 0xD095
TSB_DEBUGPWRCHANGE = 0xD096
TSB_DEBUGSTATES = 0xD097
TSB_DEBUGCOUNTER0 = 0xD098
TSB_DEBUGCOUNTER1 = 0xD099
TSB_DEBUGCOUNTER0MASK = 0xD09A
TSB_DEBUGCOUNTER1MASK = 0xD09B
TSB_DEBUGCOUNTERCONTROL = 0xD09C
TSB_DEBUGCOUNTEROVERFLOW = 0xD09D
TSB_DEBUGOMC = 0xD09E
TSB_DEBUGCOUNTERBMASK = 0xD09F
TSB_DEBUGSAVECONFIGTIME = 0xD0A0
TSB_DEBUGCLOCKENABLE = 0xD0A1
TSB_DEEPSTALLCFG = 0xD0A2
TSB_DEEPSTALLSTATUS = 0xD0A3

ES3_SYSTEM_STATUS_15 = 0x610F
ES3_MBOX_ACK_ATTR = ES3_SYSTEM_STATUS_15

TSB_ARA_VID = TSB_DME_DDBL2_A
TSB_ARA_PID = TSB_DME_DDBL2_B

INIT_STATUS_FAILED = 0x80000000
INIT_STATUS_ERROR_MASK = 0x80000000
INIT_STATUS_STATUS_MASK = 0x7F000000
INIT_STATUS_ERROR_CODE_MASK = 0x00FFFFFF


class InitStatus(IntEnum):
    """Boot progress values stored in the init status attribute."""

    UNINITIALIZED = 0
    OPERATING = 1 << 24
    SPI_BOOT_STARTED = 2 << 24
    TRUSTED_SPI_FLASH_BOOT_FINISHED = 3 << 24
    UNTRUSTED_SPI_FLASH_BOOT_FINISHED = 4 << 24
    UNIPRO_BOOT_STARTED = 6 << 24
    TRUSTED_UNIPRO_BOOT_FINISHED = 7 << 24
    UNTRUSTED_UNIPRO_BOOT_FINISHED = 8 << 24
    FALLBACK_UNIPRO_BOOT_STARTED = 9 << 24
    FALLBACK_TRUSTED_UNIPRO_BOOT_FINISHED = 10 << 24
    FALLBACK_UNTRUSTED_UNIPRO_BOOT_FINISHED = 11 << 24
    RESUMED_FROM_STANDBY = 12 << 24
    S3FW_BOOT_FINISHED = 16 << 24


def decode_init_status(value: int) -> Tuple[InitStatus, int, bool]:
    """Split a raw init status word into (status, error code, failed)."""
    if not 0 <= value <= 0xFFFFFFFF:
        raise ValueError(f"init status out of range: {value:#x}")
    status = InitStatus(value & INIT_STATUS_STATUS_MASK)
    return status, value & INIT_STATUS_ERROR_CODE_MASK, bool(value & INIT_STATUS_ERROR_MASK)


def encode_init_status(status: InitStatus, error_code: int = 0, failed: bool = False) -> int:
    """Combine a status, an error code and the failure bit into one word."""
    if not 0 <= error_code <= INIT_STATUS_ERROR_CODE_MASK:
        raise ValueError(f"error code out of range: {error_code:#x}")
    value = int(InitStatus(status)) | error_code
    if failed:
        value |= INIT_STATUS_FAILED
    return value